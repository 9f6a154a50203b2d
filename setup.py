from setuptools import setup, find_packages

setup(
    name="pyHandlerTest",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.28",
        "PyYAML>=6.0",
        "jsonpath-ng>=1.5.3",
        "Jinja2>=3.0"
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
