from setuptools import setup, find_packages

setup(
    name='browser-control',
    version='0.3.0',
    license="Apache 2.0",
    description="Browser session control plane for voice-driven web agents",
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"browser_control": ["configs/*.yaml"]},
    include_package_data=True,
    install_requires=[
        "playwright>=1.40",
        "fastapi>=0.110",
        "pydantic>=2.0",
        "uvicorn>=0.27",
        "click>=8.0",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "httpx>=0.25",
    ],
    extras_require={
        "tests": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "httpx>=0.25",
        ],
    },
    entry_points={
        'console_scripts': [
            'browser-control-server=browser_control.command.browser_control_server:run',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.10',
)
