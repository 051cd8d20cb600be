"""Development entry point: `flask --app app run` from the repository root."""

from src.hr_operations.hr_operations.main import create_app

app = create_app()

if __name__ == "__main__":
    app.run()
