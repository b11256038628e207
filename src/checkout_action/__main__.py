from .cli import app

app(prog_name="checkout-action")
