import json
from pathlib import Path

import click

from refcheck.form_renderer import PREVIEW_DESKTOP, PREVIEW_MOBILE, layout_rows
from refcheck.form_validator import validate_responses
from refcheck.validation import SchemaValidationError, ensure_usable_template, restore_default_structure


def _load_json(path):
    try:
        return json.loads(Path(path).read_text(encoding='utf-8'))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f'{path} is not valid JSON: {exc.msg}')


@click.command()
@click.argument('template_path', type=click.Path(exists=True, dir_okay=False))
@click.option('-r', '--responses', 'responses_path', type=click.Path(exists=True, dir_okay=False),
              help='Responses JSON to validate against the template')
@click.option('--mode', type=click.Choice([PREVIEW_DESKTOP, PREVIEW_MOBILE]), default=PREVIEW_DESKTOP,
              show_default=True, help='Layout used for the printed rows')
@click.option('--repair', is_flag=True, help='Refill an empty template with the standard questions')
def main(template_path, responses_path, mode, repair):
    """Check a template file, print its layout rows and optionally validate responses."""
    raw = _load_json(template_path)
    # A bare list is accepted as the structure on its own.
    if isinstance(raw, list):
        raw = {'structureJSON': raw}
    try:
        template = ensure_usable_template(raw, fixer=restore_default_structure if repair else None)
    except SchemaValidationError as exc:
        raise click.ClickException(f'Invalid template: {exc}')

    click.echo(f'{template.name or "(unnamed)"}: {len(template.structure)} field(s)')
    for row in layout_rows(template.structure, mode):
        cells = [f'{item.id} [{item.type.value}]' if item else '-' for item in row]
        click.echo('  ' + ' | '.join(cells))

    if responses_path:
        responses = _load_json(responses_path)
        if not isinstance(responses, dict):
            raise click.BadParameter('responses must be a JSON object', param_hint='--responses')
        errors = validate_responses(template.structure, responses)
        click.echo(json.dumps({'valid': not errors, 'errors': errors}, ensure_ascii=False, indent=2))
        if errors:
            raise SystemExit(1)


if __name__ == '__main__':
    main()
