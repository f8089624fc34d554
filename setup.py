from setuptools import setup, find_packages

setup(
    name="asyncarray",
    version="0.3.0",
    description="Chainable for-each, map and filter over continuation-style asynchronous workers.",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "asyncarray_demo=asyncarray.app.demo:main",
        ],
    },
)
