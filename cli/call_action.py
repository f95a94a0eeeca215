import json

import click

from refcheck import config
from refcheck.actions import Action, InvalidActionPayload
from refcheck.gateway import Gateway, HttpTransport, MockTransport, ProxyTransport, gateway_from_config


def _gateway(mode):
    if mode is None:
        return gateway_from_config()
    if mode == 'mock':
        return Gateway(MockTransport(0))
    if mode == 'proxy':
        return Gateway(ProxyTransport(config.PROXY_URL, timeout=config.GATEWAY_TIMEOUT))
    return Gateway(HttpTransport(config.GAS_BASE_URL, admin_key=config.ADMIN_API_KEY, timeout=config.GATEWAY_TIMEOUT))


@click.command()
@click.argument('action', type=click.Choice([a.value for a in Action]))
@click.option('-p', '--payload', default='{}', show_default=True, help='Action payload as a JSON object')
@click.option('-u', '--user-email', default=None, help='Acting staff email')
@click.option('--mode', type=click.Choice(['mock', 'live', 'proxy']), default=None,
              help='Override GATEWAY_MODE for this call')
def main(action, payload, user_email, mode):
    """Invoke one backend action and print the JSON result."""
    try:
        body = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f'payload is not valid JSON: {exc.msg}', param_hint='--payload')
    if not isinstance(body, dict):
        raise click.BadParameter('payload must be a JSON object', param_hint='--payload')

    try:
        result = _gateway(mode).call(action, body, user_email=user_email)
    except InvalidActionPayload as exc:
        raise click.ClickException(str(exc))
    click.echo(json.dumps(result.model_dump(), ensure_ascii=False, indent=2, default=str))
    if not result.success:
        raise SystemExit(1)


if __name__ == '__main__':
    main()
