from functools import wraps
from flask import Blueprint, current_app, request, jsonify, send_from_directory
from flask_login import login_user, logout_user, login_required, current_user
from fantasy import db
from fantasy.models import User, utcnow
from fantasy.services.uploads import public_url, save_image

main = Blueprint('main', __name__)


def admin_required(view):
    """Like ``login_required`` but also demands the admin role."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Unauthorized'}), 401
        if not current_user.is_admin:
            return jsonify({'error': 'Unauthorized (admin)'}), 403
        return view(*args, **kwargs)
    return wrapped


@main.route('/api/health')
def health():
    return jsonify({'ok': True, 'time': utcnow().isoformat()})


@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    if not email or not password:
        return jsonify({'error': 'Missing email or password'}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email exists'}), 400

    user = User(email=email, display_name=(data.get('display_name') or '').strip() or None)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    return jsonify({'ok': True, 'user': user.to_dict()}), 201


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(email=(data.get('email') or '').strip().lower()).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        return jsonify({'ok': True, 'user': user.to_dict()})
    return jsonify({'error': 'Invalid email or password'}), 401


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'ok': True})


@main.route('/me')
@login_required
def me():
    return jsonify({'ok': True, 'user': current_user.to_dict()})


@main.route('/api/me/avatar', methods=['POST'])
@login_required
def upload_avatar():
    file_name = save_image(request.files.get('avatar'), 'avatars', str(current_user.id))
    current_user.avatar_url = public_url('avatars', file_name)
    db.session.commit()
    return jsonify({'ok': True, 'avatar_url': current_user.avatar_url})


@main.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
