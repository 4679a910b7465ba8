"""
Setup script for locklearn-notify.

locklearn-notify is the notification-driven micro-learning scheduler of the
LockLearn partner SDK. It decides when each learner receives a quiz prompt:

1. Daily triggers planned from preferred times and a frequency tier
2. Quiet hours and a daily cap on prompts
3. Prompt lifecycle tracking (sent -> responded | expired)
4. Adaptive delay before the next prompt

The 'locklearn-notify' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="locklearn-notify",
    version="0.1.0",
    description="Notification-driven micro-learning scheduler for the LockLearn SDK",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="LockLearn",
    url="https://github.com/locklearn/locklearn-notify",
    packages=find_packages(include=["locklearn_notify", "locklearn_notify.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP (push gateway transport)
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
        # IANA zone data for platforms without a system tz database
        "tzdata>=2023.3",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "locklearn-notify=locklearn_notify.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
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
    keywords="learning micro-learning notifications scheduler education",
)
