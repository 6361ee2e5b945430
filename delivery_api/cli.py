# delivery_api/cli.py
import click
from flask.cli import with_appcontext

from .errors import CouponNotFound
from .services import coupon_service

@click.command("coupons-top")
@click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 100))
@with_appcontext
def coupons_top(limit):
    """Most used active coupons."""
    coupons = coupon_service.most_used_coupons(limit)
    if not coupons:
        click.echo("No active coupons"); return
    for c in coupons:
        cap = c.max_uses if c.max_uses is not None else "-"
        click.echo(f"{c.code:<20} {c.kind:<10} used {c.usage_count}/{cap}")

@click.command("coupon-deactivate")
@click.argument("code")
@with_appcontext
def coupon_deactivate(code):
    try:
        c = coupon_service.deactivate_coupon(code)
    except CouponNotFound:
        raise click.ClickException(f"Coupon {code.upper()} not found")
    click.echo(f"Coupon deactivated: {c.code}")

def register_cli(app):
    app.cli.add_command(coupons_top)
    app.cli.add_command(coupon_deactivate)
