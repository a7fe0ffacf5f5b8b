"""Package the thermlink agent (sources under python/)."""

from setuptools import setup, find_packages

setup(
    name="thermlink",
    version="0.1.0",
    description="Temperature telemetry agent with an inline command channel",
    package_dir={"": "python"},
    packages=find_packages("python"),
    python_requires=">=3.9",
    install_requires=["numpy"],
    extras_require={
        "serial": ["pyserial"],
        "test": ["pytest", "pyserial"],
    },
    entry_points={
        "console_scripts": ["thermlink=thermlink.cli:main"],
    },
)
