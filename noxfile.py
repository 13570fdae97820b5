import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]
LATEST = PYTHON_VERSIONS[-1]

# psycopg2 ships a C extension; a cached wheel may target another interpreter.
_C_EXT_PACKAGES = ["psycopg2"]


def _install(session: nox.Session) -> None:
    """Install the storefront package with its test group."""
    session.run("poetry", "install", "--with", "test", "--all-extras", external=True)
    session.run("pip", "install", "--force-reinstall", "--no-cache-dir", *_C_EXT_PACKAGES)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Full suite on every supported interpreter."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=LATEST)
def tests_domain(session: nox.Session) -> None:
    """Aggregates, value objects, pricing and packaging rules. No adapters."""
    _install(session)
    session.run("pytest", "-m", "domain", *session.posargs)


@nox.session(python=LATEST)
def tests_saga(session: nox.Session) -> None:
    """Saga services, sweeps and the BDD shipment lifecycle."""
    _install(session)
    session.run("pytest", "-m", "application", *session.posargs)


@nox.session(python=LATEST)
def tests_adapters(session: nox.Session) -> None:
    """HTTP routes, SQL stores, carrier client and the job runner."""
    _install(session)
    session.run("pytest", "-m", "integration", *session.posargs)
