"""Setup configuration for the Real-time Chat Server."""

from setuptools import setup, find_packages

setup(
    name="realtime-chat-node",
    version="0.1.0",
    description="A real-time chat server with a terminal chat client",
    author="Realtime Chat Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "websockets>=12.0",
        "aiosqlite>=0.19.0",
        "textual>=0.47.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "chat-server=chat_server.main:main",
            "chat-client=chat_client.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
