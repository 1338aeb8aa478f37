from flask import Blueprint, jsonify
from flask_login import current_user, login_required

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Lockdown timing and qualification server'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok'})


@main.route('/whoami', methods=['GET', 'OPTIONS'])
@login_required
def whoami():
    return jsonify({'role': current_user.role, 'id': current_user.id})
