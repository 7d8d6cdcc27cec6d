# src/testfork/cli/run_cmds.py

import asyncio
from pathlib import Path

import attrs
import click
import structlog
from rich.console import Console

from testfork.cli.utils import LOG_LEVEL_CHOICES, logging_options, parse_key_value, setup_logging_from_context
from testfork.config import DEFAULT_CONFIG_PATH, TestforkConfig, load_config
from testfork.exceptions import ConfigurationError, TestforkError
from testfork.model import IncludeExcludeList, TestParameters
from testfork.report import print_report
from testfork.runner import ForkedRunResult, ForkedTestRunner
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")

EXIT_CODE_CRASHED = 2
# Lines of child stderr shown when the run crashed.
CRASH_OUTPUT_TAIL = 20


def _extend(base: IncludeExcludeList, included: tuple[str, ...], excluded: tuple[str, ...]) -> IncludeExcludeList:
    return IncludeExcludeList(
        included=[*base.included, *included],
        excluded=[*base.excluded, *excluded],
    )


def build_parameters(config: TestforkConfig, options: dict) -> TestParameters:
    """Adds command line selectors and filters to the configured defaults."""
    base = config.parameters
    filter_stack_traces = options.get("filter_stack_traces")
    return attrs.evolve(
        base,
        configuration={**base.configuration, **options.get("engine_options", {})},
        filter_stack_traces=base.filter_stack_traces if filter_stack_traces is None else filter_stack_traces,
        select_packages=[*base.select_packages, *options.get("packages", ())],
        select_classes=[*base.select_classes, *options.get("classes", ())],
        select_methods=[*base.select_methods, *options.get("methods", ())],
        select_resources=[*base.select_resources, *options.get("paths", ())],
        classpath_roots=list(dict.fromkeys([*base.classpath_roots, *options.get("roots", ())])),
        filter_class_name_patterns=_extend(
            base.filter_class_name_patterns,
            options.get("include_classes", ()),
            options.get("exclude_classes", ()),
        ),
        filter_packages=_extend(
            base.filter_packages,
            options.get("include_packages", ()),
            options.get("exclude_packages", ()),
        ),
        filter_tags=_extend(
            base.filter_tags,
            options.get("include_tags", ()),
            options.get("exclude_tags", ()),
        ),
        log_level=options.get("child_log_level") or config.runner.log_level,
    )


def _report_crash(result: ForkedRunResult) -> None:
    reason = "timed out" if result.timed_out else f"exited with code {result.exit_code}"
    click.echo(f"Error: forked test process {reason} without a complete report.", err=True)
    tail = result.stderr_lines[-CRASH_OUTPUT_TAIL:]
    if tail:
        click.echo("Last output of the test process:", err=True)
        for line in tail:
            click.echo(f"  {line}", err=True)


@click.command(name="run")
@click.argument("paths", nargs=-1, type=click.Path())
@click.option(
    "-c",
    "--config-path",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
    default=None,
    envvar="TESTFORK_CONF",
    show_envvar=True,
    help=f"Path to the testfork configuration file (default: ./{DEFAULT_CONFIG_PATH} if present).",
)
@click.option("-p", "--package", "packages", multiple=True, help="Select all tests of a package.")
@click.option("--class", "classes", multiple=True, help="Select a test class, e.g. 'pkg.test_mod.TestFoo'.")
@click.option("-m", "--method", "methods", multiple=True, help="Select a test, e.g. 'pkg.test_mod.TestFoo#test_bar'.")
@click.option("--root", "roots", multiple=True, type=click.Path(file_okay=False), help="Import root, also searched for tests.")
@click.option("--include-class", "include_classes", multiple=True, help="Regex the declaring type must fully match.")
@click.option("--exclude-class", "exclude_classes", multiple=True, help="Regex of declaring types to skip.")
@click.option("--include-package", "include_packages", multiple=True, help="Only run tests in this package.")
@click.option("--exclude-package", "exclude_packages", multiple=True, help="Do not run tests in this package.")
@click.option("-t", "--include-tag", "include_tags", multiple=True, help="Only run tests with this marker.")
@click.option("-T", "--exclude-tag", "exclude_tags", multiple=True, help="Do not run tests with this marker.")
@click.option(
    "-o",
    "--engine-option",
    "engine_options",
    multiple=True,
    callback=parse_key_value,
    help="Engine configuration as KEY=VALUE (pytest ini option).",
)
@click.option(
    "--filter-stack-traces/--no-filter-stack-traces",
    default=None,
    help="Trim engine frames from failure stack traces.",
)
@click.option("--child-log-level", type=LOG_LEVEL_CHOICES, default=None, help="Logging level of the forked process.")
@click.option("--python", "python_executable", default=None, envvar="TESTFORK_PYTHON", help="Interpreter of the forked process.")
@click.option("--timeout", type=float, default=None, help="Kill the forked process after this many seconds without output.")
@click.option("--save-report", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write the binary report to a file.")
@click.option("--show-output", is_flag=True, default=False, help="Echo everything the forked process wrote to stderr.")
@logging_options
@click.pass_context
def run_cli(ctx: click.Context, config_path: Path | None, **kwargs):
    """Run tests in a forked Python process and print the report."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level="WARNING",
    )
    if config_path is None and DEFAULT_CONFIG_PATH.is_file():
        config_path = DEFAULT_CONFIG_PATH
    log.info("Executing 'run' command", config_path=str(config_path) if config_path else None)

    try:
        config = load_config(config_path)
        if kwargs.get("python_executable"):
            config = attrs.evolve(config, runner=attrs.evolve(config.runner, python_executable=kwargs["python_executable"]))
        if kwargs.get("timeout") is not None:
            config = attrs.evolve(config, runner=attrs.evolve(config.runner, timeout=kwargs["timeout"]))
        parameters = build_parameters(config, kwargs)
    except (ConfigurationError, ValueError) as e:
        log.error("Invalid configuration", error=str(e))
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_CODE_CRASHED)

    runner = ForkedTestRunner(config.runner.python_executable)
    try:
        result = asyncio.run(
            runner.run_tests(parameters, config.runner.working_dir, timeout=config.runner.timeout)
        )
    except TestforkError as e:
        log.error("Could not run the forked test process", error=str(e))
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_CODE_CRASHED)

    if kwargs.get("show_output"):
        for line in result.stderr_lines:
            click.echo(line, err=True)

    if result.crashed:
        _report_crash(result)
        ctx.exit(EXIT_CODE_CRASHED)

    report = result.report
    print_report(report, Console())

    save_report = kwargs.get("save_report")
    if save_report is not None:
        save_report.write_bytes(report.to_bytes())
        log.info("Report saved", path=str(save_report))

    if not report.failed:
        log.info("All tests passed", tests=report.summary().tests_found, emoji_key="success")
    ctx.exit(report.exit_code)

# 🔼⚙️
