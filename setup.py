# setup.py
from setuptools import setup, find_packages

setup(
    name="seo_autofix",
    version="0.1.0",
    description="SEO crawler and reversible, git-backed change tracking for automated site fixes",
    packages=find_packages(include=["seo_autofix", "seo_autofix.*"]),
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "click>=8.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "seo-autofix=seo_autofix.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
