"""Setup script for the Dashboard Lite server."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

requirements = [
    "aiohttp>=3.9.0",
    "httpx>=0.25.0",
    "icalendar>=5.0.0",
    "pydantic>=2.5.0",
    "python-dateutil>=2.8.2",
    "colorlog>=6.7.0",
]

dev_requirements = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.23.0",
]

setup(
    name="dashboard-lite",
    version="0.1.0",
    description="Local dashboard server with multi-calendar ICS agenda aggregation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Dashboard Lite Team",
    # Package configuration
    packages=find_packages(exclude=["tests*", "docs*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar ics dashboard agenda aiohttp async",
    # Entry points
    entry_points={
        "console_scripts": [
            "dashboard-lite=dashboard_lite.__main__:main",
        ],
    },
    zip_safe=False,
)
