import os
from flask import Blueprint, jsonify, current_app, send_file
from souris.services.bitmap import BitmapBuilder, ImageLoadError
from souris.services.circuits import CircuitNotFound, circuit_image_path, load_circuit

circuits = Blueprint('circuits', __name__)


def _builder() -> BitmapBuilder:
    return BitmapBuilder(offload=bool(current_app.config.get('BITMAP_OFFLOAD', True)))


def _circuit_not_found(circuit_id: int):
    return jsonify({
        'error': 'Circuit not found',
        'message': f'Circuit {circuit_id} does not exist',
    }), 404


@circuits.route('/<int:circuit_id>', methods=['GET'])
def get_circuit(circuit_id):
    try:
        data = load_circuit(circuit_id, current_app.config['CIRCUITS_DIR'], builder=_builder())
    except CircuitNotFound:
        return _circuit_not_found(circuit_id)
    except ImageLoadError as exc:
        current_app.logger.error(f"[circuit-load] circuit={circuit_id} failed: {exc}")
        return jsonify({'error': 'Image load error', 'message': str(exc)}), 422
    payload = data.to_dict()
    payload['totalCircuits'] = int(current_app.config.get('TOTAL_CIRCUITS', 17))
    return jsonify(payload)


@circuits.route('/<int:circuit_id>/image', methods=['GET'])
def get_circuit_image(circuit_id):
    path = os.path.abspath(circuit_image_path(current_app.config['CIRCUITS_DIR'], circuit_id))
    if not os.path.isfile(path):
        return _circuit_not_found(circuit_id)
    return send_file(path, mimetype='image/png')
