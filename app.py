from src.attendance_sync.attendance_sync.main import create_app

app = create_app()

if __name__ == "__main__":
    # The sync loop lives in its own thread; the reloader would start a second one.
    app.run(debug=app.config["DEBUG"], use_reloader=False)
