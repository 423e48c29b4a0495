"""
Flask application factory.

Creates and configures the app, registers all blueprints.
"""
import os
from datetime import datetime, timezone
from flask import Flask, request, session, redirect, render_template_string


def _time_since(iso_str):
    """Jinja2 filter: convert ISO timestamp to '2m ago' style string."""
    if not iso_str:
        return ''
    try:
        if isinstance(iso_str, str):
            dt = datetime.fromisoformat(iso_str.replace('Z', '+00:00'))
        else:
            dt = iso_str
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        diff = (datetime.now(timezone.utc) - dt).total_seconds()
        if diff < 60:
            return 'just now'
        if diff < 3600:
            return f'{int(diff // 60)}m ago'
        if diff < 86400:
            return f'{int(diff // 3600)}h ago'
        return f'{int(diff // 86400)}d ago'
    except (ValueError, TypeError):
        return ''


LOGIN_PAGE = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Login — Repo Leads</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="min-h-screen flex items-center justify-center bg-slate-100">
    <div class="bg-white rounded-xl shadow p-10 w-full max-w-sm">
        <h1 class="text-lg font-bold mb-1 text-indigo-700">Repo Leads Dashboard</h1>
        <p class="text-sm mb-6 text-slate-500">Enter password to continue</p>
        {% if error %}
        <p class="text-xs mb-3 text-red-500">Wrong password</p>
        {% endif %}
        <form method="POST" action="/login">
            <input type="password" name="password" autofocus placeholder="Password"
                   class="w-full rounded-lg px-3 py-2.5 text-sm mb-4 border border-slate-200">
            <button type="submit" class="w-full rounded-lg py-2.5 text-sm font-medium text-white bg-indigo-600">
                Log in
            </button>
        </form>
    </div>
</body>
</html>
'''

OPEN_PATHS = {'/health', '/login'}


def create_app():
    """Create and configure the Flask application."""
    from leadgen.logging_config import configure_logging

    root = os.path.dirname(os.path.dirname(__file__))
    app = Flask(
        __name__,
        template_folder=os.path.join(root, 'templates'),
        static_folder=os.path.join(root, 'static'),
    )

    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    app.jinja_env.filters['time_since'] = _time_since

    # ── Simple password auth ────────────────────────────────────────────
    from leadgen.config import DASHBOARD_PASSWORD

    @app.before_request
    def require_login():
        if not DASHBOARD_PASSWORD:
            return  # No password set — open access (local dev)
        if request.path in OPEN_PATHS or request.path.startswith('/static/'):
            return
        if session.get('authenticated'):
            return
        if request.path.startswith('/api/'):
            return {'success': False, 'error': 'Authentication required'}, 401
        return redirect('/login')

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        if request.method == 'POST':
            if request.form.get('password') == DASHBOARD_PASSWORD:
                session['authenticated'] = True
                return redirect('/')
            return render_template_string(LOGIN_PAGE, error=True)
        return render_template_string(LOGIN_PAGE, error=False)

    @app.route('/logout')
    def logout():
        session.clear()
        return redirect('/login')

    # Register blueprints
    from leadgen.routes.dashboard import bp as dashboard_bp
    from leadgen.routes.leads import bp as leads_bp
    from leadgen.routes.email import bp as email_bp
    from leadgen.routes.runs import bp as runs_bp
    from leadgen.routes.exports import bp as exports_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(email_bp)
    app.register_blueprint(runs_bp)
    app.register_blueprint(exports_bp)

    # Circuit breakers for every external service
    from leadgen.extensions import redis_client
    from leadgen.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    return app
