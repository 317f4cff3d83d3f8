from app.vendorvault import create_app

app = create_app()
