#!/usr/bin/env python
"""Skill Forge: AI-guided discovery for new skills."""

from setuptools import find_packages, setup

VERSION = "0.1.0b1"
CLASSIFIERS = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "License :: OSI Approved :: MIT License",
]

DEPENDENCIES = [
    "knack>=0.11.0",
    "pyyaml>=6.0",
    "requests>=2.28.0",
    "rich>=13.0.0",
    "jinja2>=3.1.0",
    "openai>=1.0.0",
    # prompt_toolkit for multi-line input (Escape+Enter, backslash continuation)
    "prompt_toolkit>=3.0.0",
]

EXTRAS = {
    # Entra ID (keyless) authentication for the azure-openai provider
    "azure": ["azure-identity>=1.15.0"],
    "test": ["pytest>=7.0"],
}

setup(
    name="skill-forge",
    version=VERSION,
    description="Guided, AI-assisted discovery that turns a skill idea into a specification",
    long_description="Walks through discover, define and architect phases, proposing an answer for every question.",
    license="MIT",
    author="Skill Forge contributors",
    author_email="",
    classifiers=CLASSIFIERS,
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=DEPENDENCIES,
    extras_require=EXTRAS,
    package_data={
        "skillforge": [
            "templates/*.j2",
        ]
    },
    entry_points={
        "console_scripts": [
            "skillforge=skillforge:main",
        ]
    },
)
