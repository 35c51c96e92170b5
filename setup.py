from setuptools import setup, find_packages

setup(
    name="linkpost",
    version="0.1.0",
    description="LinkPost - RSS to social post draft generator",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "aiohttp>=3.8.0",
        "async-timeout>=4.0.0",
        "backoff>=1.11.0",
        "beautifulsoup4>=4.10.0",
        "feedparser>=6.0.0",
        "nltk>=3.6.0",
        "trafilatura>=1.2.0",
        "openai>=1.0.0",
        "tqdm>=4.62.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "schedule>=1.2.0",
        "pytz>=2023.3",
        "tzdata; platform_system == 'Windows'",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "linkpost=linkpost.cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
