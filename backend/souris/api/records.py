from flask import Blueprint, jsonify, request, current_app
from souris.services.leaderboard import Leaderboard, parse_circuit_id
from souris.services.security import InvalidInput

records = Blueprint('records', __name__)

# Request field -> accepted aliases (the first browser client used the French names)
REQUIRED_FIELDS = (
    ('circuit', ('circuit', 'parcours')),
    ('pseudo', ('pseudo',)),
    ('chronoCentiseconds', ('chronoCentiseconds', 'chrono')),
    ('token', ('token',)),
    ('key', ('key',)),
)


def _missing(name: str):
    return jsonify({
        'error': 'Missing parameter',
        'message': f'The "{name}" parameter is required',
    }), 400


def _invalid(exc: Exception):
    return jsonify({'error': 'Invalid parameter', 'message': str(exc)}), 400


def _pick(data, aliases):
    for alias in aliases:
        value = data.get(alias)
        if value is not None and value != '':
            return value
    return None


@records.route('', methods=['GET', 'POST', 'OPTIONS'])
def records_endpoint():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    if request.method == 'GET':
        return get_records()
    return submit_record()


def get_records():
    circuit = _pick(request.args, ('circuit', 'parcours'))
    if circuit is None:
        return _missing('circuit')
    try:
        circuit_id = parse_circuit_id(circuit)
    except InvalidInput as exc:
        return _invalid(exc)
    board = Leaderboard.from_app(current_app)
    current_app.logger.info(f"[records-get] circuit={circuit_id}")
    return jsonify({'records': [r.to_dict() for r in board.get(circuit_id)]})


def submit_record():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form.to_dict()
    values = {}
    for name, aliases in REQUIRED_FIELDS:
        value = _pick(data, aliases)
        if value is None:
            current_app.logger.info(f"[records-submit] rejected: missing {name}")
            return _missing(name)
        values[name] = value

    board = Leaderboard.from_app(current_app)
    try:
        result = board.submit(
            values['circuit'],
            values['pseudo'],
            values['chronoCentiseconds'],
            values['token'],
            values['key'],
        )
    except InvalidInput as exc:
        current_app.logger.info(f"[records-submit] rejected: {exc}")
        return _invalid(exc)
    return jsonify(result.to_dict())
