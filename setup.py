# setup.py
from setuptools import setup, find_packages

setup(
    name="tagcoder-project",
    version="0.1.0",
    description="Stream tagged model output into project files, with fuzzy patching and reversible turn history. "
                "Composed of the tagcoder, tagstream and tagflow libraries.",
    author="TagCoder Team",
    python_requires=">=3.8",
    # tagflow: patching, snapshots, history, storage
    # tagstream: streaming tag tokenizer (depends on tagflow)
    # tagcoder: service layer and CLI (depends on both)
    packages=find_packages(include=['tagcoder', 'tagcoder.*', 'tagflow', 'tagflow.*', 'tagstream', 'tagstream.*']),
    include_package_data=True,
    package_data={
        'tagcoder': ['templates/*.j2'],
    },
    install_requires=[
        "click>=8.0",
        "pyyaml",
        "jinja2",
        "rich",
    ],
    extras_require={
        'test': [
            "pytest>=7.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'tagcoder = tagcoder.cli:cli',
        ],
    },
)
