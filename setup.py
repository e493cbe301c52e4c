from setuptools import find_packages, setup

setup(
    name='sshdb',
    version='0.3.0',
    description='Keyboard-driven registry of SSH hosts and session launcher',
    packages=find_packages(include=['sshdb', 'sshdb.*']),
    python_requires='>=3.11',
    install_requires=[
        'textual',
        'tomli-w',
        'platformdirs',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'sshdb=sshdb.tui:main',
        ],
    },
)
