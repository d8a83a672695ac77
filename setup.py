"""
WebPilot - Setup Configuration

Browser sessions for AI agents: screenshot-first browser automation with
remote browser discovery.

License: Apache-2.0
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies (DEFAULT installation)
core_deps = [
    # Browser automation
    "playwright>=1.55.0",
    # Remote browser discovery
    "aiohttp>=3.12.15",
    "psutil>=7.1.0",
    # Results
    "pydantic>=2.11.9",
    # HTML processing
    "beautifulsoup4>=4.14.2",
]

# Testing dependencies
test_deps = [
    "pytest>=8.4.1",
    "pytest-asyncio>=1.0.0",
    "pytest-cov>=6.2.1",
]

# Development dependencies
dev_deps = test_deps + [
    # Code quality
    "black>=25.0.0",
    "flake8>=7.1.0",
    "mypy>=1.13.0",
]

setup(
    name="webpilot",
    version="0.1.0",

    # Package description
    description="Screenshot-first browser sessions for AI agents, with remote browser discovery",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.11",

    # Dependencies
    install_requires=core_deps,

    # Optional dependencies (extras)
    extras_require={
        "test": test_deps,
        "dev": dev_deps,
    },

    # PyPI classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Internet :: WWW/HTTP :: Browsers",
        "Topic :: Software Development :: Testing",
        "Framework :: AsyncIO",
    ],

    keywords=["browser", "automation", "playwright", "cdp", "agents", "screenshot"],

    # License
    license="Apache-2.0",

    include_package_data=True,
    zip_safe=False,
)
