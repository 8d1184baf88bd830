import setuptools

setuptools.setup(
    name="plugincache",
    version="1",
    description="A file-system cache with cross-process locks for plugins",
    packages=[
        "plugincache",
        "plugincache.util",
    ],
    license='Apache-2.0',
    python_requires=">=3.8",
    install_requires=[
        "jsonschema",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "plugincache = plugincache.main_cli:plugincache_cli"
        ]
    },
)
