from flask_socketio import emit
from flask import current_app, request
from souris import socketio
from souris.services.bitmap import BitmapBuilder, ImageLoadError
from souris.services.circuits import CircuitData, load_circuit
from souris.services.engine import CollisionEngine
from souris.services.leaderboard import parse_circuit_id
from souris.services.security import InvalidInput, compute_key
from typing import Dict, Optional


class PlaySession:
    """One loaded circuit and its engine, owned by a single socket."""

    def __init__(self, circuit: CircuitData, engine: CollisionEngine):
        self.circuit = circuit
        self.engine = engine

    def state_payload(self) -> dict:
        payload = self.engine.to_dict()
        payload['circuit'] = self.circuit.circuit
        chrono = payload.get('chronoCentiseconds')
        if chrono is not None:
            payload['key'] = compute_key(chrono, self.circuit.token)
        return payload


_sessions: Dict[str, PlaySession] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_session() -> Optional[PlaySession]:
    session = _sessions.get(_get_sid())
    if session is None:
        emit('error', {'message': 'No circuit loaded'})
    return session


def _position(data):
    try:
        return int((data or {})['x']), int((data or {})['y'])
    except (KeyError, TypeError, ValueError, OverflowError):
        emit('error', {'message': 'x and y are required integers'})
        return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _sessions.pop(_get_sid(), None)


def handle_load_circuit(data):
    try:
        circuit_id = parse_circuit_id((data or {}).get('circuit'))
    except InvalidInput as exc:
        emit('error', {'message': str(exc)})
        return
    cfg = current_app.config
    builder = BitmapBuilder(offload=bool(cfg.get('BITMAP_OFFLOAD', True)))
    try:
        circuit = load_circuit(circuit_id, cfg['CIRCUITS_DIR'], builder=builder)
    except ImageLoadError as exc:
        current_app.logger.error(f"[play-load] circuit={circuit_id} failed: {exc}")
        emit('error', {'message': str(exc)})
        return
    engine = CollisionEngine(
        circuit.grid,
        tolerance=int(cfg.get('COLLISION_TOLERANCE', 2)),
        teleport_distance=float(cfg.get('TELEPORT_DISTANCE', 400)),
    )
    _sessions[_get_sid()] = PlaySession(circuit, engine)
    current_app.logger.info(f"[play-load] circuit={circuit_id} size={circuit.width}x{circuit.height}")
    payload = circuit.to_dict()
    payload['token'] = circuit.token
    emit('circuit_loaded', payload)


def handle_start(data):
    session = _current_session()
    if session is None:
        return
    position = _position(data)
    if position is None:
        return
    started = session.engine.start(position)
    payload = session.state_payload()
    payload['started'] = started
    emit('state', payload)


def handle_move(data):
    session = _current_session()
    if session is None:
        return
    position = _position(data)
    if position is None:
        return
    signal = session.engine.update_position(*position)
    if signal is not None:
        current_app.logger.info(
            f"[play-end] circuit={session.circuit.circuit} signal={signal.value} elapsed={session.engine.elapsed:.2f}"
        )
    emit('state', session.state_payload())


def handle_abandon(data):
    session = _current_session()
    if session is None:
        return
    session.engine.abandon((data or {}).get('reason', 'abandoned'))
    emit('state', session.state_payload())


def handle_reset(data=None):
    session = _current_session()
    if session is None:
        return
    session.engine.reset()
    emit('state', session.state_payload())


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register the play handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('load_circuit', handle_load_circuit, namespace='/ws')
    socketio.on_event('start', handle_start, namespace='/ws')
    socketio.on_event('move', handle_move, namespace='/ws')
    socketio.on_event('abandon', handle_abandon, namespace='/ws')
    socketio.on_event('reset', handle_reset, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')
