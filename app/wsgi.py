from app.bootcamp import create_app

app = create_app()
