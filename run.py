import eventlet
eventlet.monkey_patch()

from backend import config
from backend.app import create_app, socketio

app = create_app(debug=config.DEBUG)

if __name__ == "__main__":
    # Local, single-user: bind to loopback only
    socketio.run(app, host=config.HOST, port=config.PORT, debug=config.DEBUG, use_reloader=False)
