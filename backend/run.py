from live_audience import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # SocketIO server picks the async mode used by device polling loops
    socketio.run(app, debug=True)
