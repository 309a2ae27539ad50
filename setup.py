"""
Setup script for Talk With Doc.
"""

from setuptools import find_packages
from setuptools import setup

setup(
    name="talk-with-doc",
    version="1.0.0",
    description="Spoken critic/creative dialogue about an open document, with barge-in",
    author="AI Team",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn[standard]>=0.24.0",
        "websockets>=12.0",
        "pydantic>=2.8.0",
        "pydantic-settings>=2.1.0",
        "pyyaml>=6.0.1",
        "python-dotenv>=1.0.0",
        "httpx>=0.25.0",
        "typer>=0.9.0",
        "numpy>=1.24.0",
        "sounddevice>=0.4.6",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "talk-with-doc=talk_with_doc.cli:app",
        ],
    },
)
