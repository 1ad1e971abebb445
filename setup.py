from setuptools import setup, find_packages

setup(
    name='kubehop',
    version='0.1.0',
    packages=find_packages(exclude=['kubehop.tests']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'fastapi',
        'uvicorn',
        'kubernetes',
        'python-dotenv',
        'requests',
        'pydantic>=2',
        'pyyaml',
        'jsonschema',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
    entry_points={
        'console_scripts': [
            'kubehop=kubehop.cli:app'
        ]
    },
    author='Your Name',
    description='CLI and API gateway for Kubernetes cluster lifecycle over SSH hop chains',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
