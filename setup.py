# setup.py
from setuptools import setup, find_packages

setup(
    name="chatledger",
    version="0.1.0",
    description="A chat bot for recording spending and income into a spreadsheet-backed ledger",
    author="Your Name",
    author_email="you@example.com",
    url="https://github.com/yourusername/chatledger",
    packages=find_packages(include=["chat_ledger", "chat_ledger.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=7.0",
        "pyyaml>=5.3",
        "python-dotenv>=0.19",
        "gspread>=5.0.0",
        "google-auth>=2.0.0",
        "huggingface_hub>=0.20",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "chatledger=chat_ledger.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
