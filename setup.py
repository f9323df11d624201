"""Setup configuration for DramaScore."""

from setuptools import setup, find_packages

setup(
    name="dramascore",
    version="0.1.0",
    description="Quality scorer for multi-episode short-drama scripts",
    author="DramaScore Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"dramascore.scoring": ["data/*.yaml"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "anthropic>=0.18.0",
        "rich>=13.0.0",
        "typer>=0.9.0",
        "pyyaml>=6.0",
        "jinja2>=3.1.0",
        "python-dotenv>=1.0.0",
        "flask>=2.3.0",
        "pydantic>=2.0.0",
        "tenacity>=8.2.0",
        "python-docx>=1.1.0",
        "pypdf>=4.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "dramascore=dramascore.ui.cli:main",
        ],
    },
)
