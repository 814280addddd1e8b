from redshirt.cli.app import app

app()
