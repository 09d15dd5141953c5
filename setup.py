"""
Setup script for ceprep.

ceprep turns a licensing-course Word document into a gated curriculum:

1. Curriculum Import - Track -> Module -> Lesson mapping with CE hours
2. Lesson Checkpoints - reading gates, microquizzes, completion rules
3. Study Tools - question banks, exam blueprints and SM-2 flashcards

The 'ceprep' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="ceprep",
    version="1.0.0",
    description="Insurance-licensing curriculum ingestion and spaced-repetition study pipeline",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="ceprep maintainers",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Documents
        "python-docx>=1.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
            "numpy>=1.24.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
        "embeddings": [
            "sentence-transformers>=2.2.0",
            "numpy>=1.24.0",
        ],
        "ai": [
            "google-generativeai>=0.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ceprep=ceprep.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="insurance licensing continuing-education spaced-repetition curriculum",
)
