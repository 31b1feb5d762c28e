from setuptools import setup, find_packages

setup(
    name='hq-launcher',
    version='0.1.0',
    description='Installer and manifest-driven sync for modded game versions',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=[
        'aiohttp',
        'aiofiles',
        'pick',
        'platformdirs',
        'PyYAML',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest<9',
            'pytest-asyncio',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'hq-launcher=hqlauncher.cli:main',
        ],
    },
)
