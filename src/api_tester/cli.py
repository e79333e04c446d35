"""CLI entry point for api-tester."""

import json
from pathlib import Path

import click

from api_tester import runner
from api_tester.config import Settings, configure_logging
from api_tester.errors import ApiTesterError
from api_tester.export import write_archive, write_tree
from api_tester.generator.bdd import BddCodeGenerator, attach_results
from api_tester.generator.plan import GeneratorOptions
from api_tester.generator.validator import validate_generated
from api_tester.models import Collection
from api_tester.parser.collection import (
    load_results,
    parse_collection,
    parse_response,
    parse_rules,
    save_collection,
    save_results,
)
from api_tester.parser.detect import detect_format
from api_tester.parser.postman import parse_postman
from api_tester.parser.swagger import parse_openapi
from api_tester.relay import RelayClient
from api_tester.validation import evaluate, summarize
from api_tester.values import extract, filter_values


def _parse_doc(file_path: Path, fmt: str) -> Collection:
    """Parse an import file based on format."""
    if fmt == "auto":
        fmt = detect_format(file_path)

    if fmt == "swagger":
        return parse_openapi(file_path)
    elif fmt == "postman":
        return parse_postman(file_path)
    else:
        return parse_collection(file_path)


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


@click.group()
@click.option("--config", "config_file", default=None, type=click.Path(exists=True, path_type=Path), help="YAML config file.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_file: Path | None, verbose: bool):
    """API Tester — validate API responses and generate BDD test code."""
    configure_logging(verbose)
    try:
        settings = Settings.load(config_file)
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command("import")
@click.argument("source", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output collection file.")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "collection", "postman", "swagger"]), help="Import format.")
def import_(source: Path, output: Path, fmt: str):
    """Convert a Postman or OpenAPI document into a collection file."""
    click.echo(f"Parsing {source} (format: {fmt})...")
    try:
        collection = _parse_doc(source, fmt)
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Found {len(collection.endpoints)} endpoints.")

    save_collection(collection, output)
    click.echo(f"Collection saved to {output}")


@main.command()
@click.argument("source", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output results JSON file.")
@click.option("--relay-url", default=None, help="Relay base URL.")
@click.option("--timeout", default=None, type=float, help="Relay timeout in seconds.")
@click.option("--no-default-validation", is_flag=True, help="Do not add a status 200 check to endpoints without rules.")
@click.pass_context
def run(ctx: click.Context, source: Path, output: Path, relay_url: str | None, timeout: float | None, no_default_validation: bool):
    """Execute every endpoint through the relay and record the results."""
    settings = _settings(ctx)
    try:
        collection = _parse_doc(source, "auto")
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e

    relay = RelayClient(relay_url or settings.relay_url, timeout or settings.timeout)
    endpoints = collection.endpoints
    click.echo(f"Executing {len(endpoints)} endpoints via {relay.base_url}...")

    def progress(current: int, total: int) -> None:
        endpoint = endpoints[current - 1]
        click.echo(f"  [{current}/{total}] {endpoint.method} {endpoint.url}")

    results = runner.run_batch(
        endpoints,
        relay,
        default_validation=settings.default_validation and not no_default_validation,
        on_progress=progress,
    )

    for result in results:
        if not result.succeeded:
            click.echo(f"  Failed: {result.endpoint.name or result.endpoint.url}: {result.error}", err=True)

    save_results(results, output)
    click.echo(str(runner.summarize(results)))
    click.echo(f"Results saved to {output}")


@main.command()
@click.argument("source", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output directory, or zip file with --zip.")
@click.option("--results", "results_path", default=None, type=click.Path(exists=True, path_type=Path), help="Execution results to merge.")
@click.option("--base-package", default=None, help="Dotted package for generated Python code.")
@click.option("--endpoint-name", default=None, help="Name used for every endpoint without its own.")
@click.option("--zip", "as_zip", is_flag=True, help="Write a zip archive instead of a directory tree.")
@click.option("--append", is_flag=True, help="Keep files that already exist in the output directory.")
@click.option("--all", "include_all", is_flag=True, help="Include endpoints whose execution did not succeed.")
@click.pass_context
def generate(
    ctx: click.Context,
    source: Path,
    output: Path,
    results_path: Path | None,
    base_package: str | None,
    endpoint_name: str | None,
    as_zip: bool,
    append: bool,
    include_all: bool,
):
    """Generate feature files, step definitions, services and models."""
    settings = _settings(ctx)
    try:
        collection = _parse_doc(source, "auto")
        endpoints = collection.endpoints
        if results_path is not None:
            only_successful = settings.only_successful and not include_all
            endpoints = attach_results(endpoints, load_results(results_path), only_successful)
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e

    options = GeneratorOptions(
        endpoint_name=endpoint_name,
        base_package=base_package or settings.base_package,
        error_schema=collection.error_schema,
    )
    click.echo(f"Generating code for {len(endpoints)} endpoints...")
    code = BddCodeGenerator().generate(endpoints, options)

    errors = validate_generated(code)
    for filename, message in errors.items():
        click.echo(f"  Warning: {filename}: {message}", err=True)

    if as_zip:
        write_archive(code, options.base_package, output)
        click.echo(f"Archive saved to {output}")
    else:
        skipped = write_tree(code, options.base_package, output, overwrite=not append)
        for path in skipped:
            click.echo(f"  Skipped existing {path}")
    click.echo(f"Generated {len(code.all_files())} files in {output}")


@main.command()
@click.argument("response_path", type=click.Path(exists=True, path_type=Path))
@click.option("--rules", "rules_path", required=True, type=click.Path(exists=True, path_type=Path), help="Rules YAML/JSON file.")
def validate(response_path: Path, rules_path: Path):
    """Evaluate validation rules against a saved response."""
    try:
        response = parse_response(response_path)
        rules = parse_rules(rules_path)
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e

    evaluated = evaluate(response, rules)
    for rule in evaluated:
        mark = "PASS" if rule.result == "pass" else "FAIL"
        click.echo(f"  [{mark}] {rule.message}")
    passed, total = summarize(evaluated)
    click.echo(f"{passed}/{total} validations passed.")
    if passed != total:
        raise SystemExit(1)


@main.command("values")
@click.argument("response_path", type=click.Path(exists=True, path_type=Path))
@click.option("--search", default=None, help="Only show values or paths containing this text.")
def values_(response_path: Path, search: str | None):
    """List every distinct value in a saved response."""
    try:
        response = parse_response(response_path)
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e

    found = extract(response.data)
    if search:
        found = filter_values(found, search)
    for item in found:
        count = f" (x{item.count})" if item.count > 1 else ""
        click.echo(f"  {item.path or '<root>'} = {json.dumps(item.value)} [{item.type}]{count}")
    click.echo(f"{len(found)} values.")


@main.command()
@click.option("--relay-url", default=None, help="Relay base URL.")
@click.pass_context
def health(ctx: click.Context, relay_url: str | None):
    """Check that the relay is up."""
    settings = _settings(ctx)
    relay = RelayClient(relay_url or settings.relay_url, settings.timeout)
    try:
        info = relay.health()
    except ApiTesterError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Relay at {relay.base_url} is up: {json.dumps(info)}")
