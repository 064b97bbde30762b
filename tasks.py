# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create .venv with the package and its test and dev extras."""
    ctx.run("uv venv")
    ctx.run('uv pip install -e ".[test,dev]"')


@task
def clean(ctx):
    """Remove build artifacts and caches."""
    ctx.run("rm -rf dist build .pytest_cache .mypy_cache .ruff_cache .coverage htmlcov")
    ctx.run("find . -name __pycache__ -type d -prune -exec rm -rf {} +")


@task
def format(ctx):
    """Format sources with ruff."""
    ctx.run("ruff format src tests", pty=True)


@task
def lint(ctx):
    """Run ruff and mypy."""
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task(help={"cov": "Report coverage", "k": "Only run tests matching this expression"})
def test(ctx, cov=True, k=""):
    """Run the test suite."""
    cmd = "pytest"
    if cov:
        cmd += " --cov=shellydeck --cov-report=term-missing"
    if k:
        cmd += f" -k '{k}'"
    ctx.run(cmd, pty=True)


@task(help={"config": "Config file to use instead of the default location"})
def console(ctx, config=""):
    """Open the console against the configured fleet."""
    env = {"SHELLYDECK_CONFIG": config} if config else {}
    ctx.run("shellydeck tui", pty=True, env=env)


@task
def build_package(ctx):
    """Build sdist and wheel with uv."""
    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task(pre=[lint, test])
def release(ctx):
    """Check, build and publish to PyPI."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    build_package(ctx)
    ctx.run(f"uv publish --token {token}")
