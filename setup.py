"""
Setup script for Pubky Private Messenger - encrypted one-to-one messaging
over public-key-addressed storage.

This package provides:
- End-to-end encrypted, signed private messages (X25519 + ChaCha20-Poly1305)
- Conversation addresses only the two participants can compute
- Best-effort new-message notifications
- A device-bound local session vault (Argon2id)
- Profile resolution for followed accounts
"""

from setuptools import setup, find_packages
import os

this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='pubky-private-messenger',
    version='0.2.0',
    description='End-to-end encrypted private messaging core for Pubky homeservers',
    long_description=long_description,
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Topic :: Communications :: Chat',
        'Topic :: Security :: Cryptography',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Framework :: AsyncIO',
    ],
    python_requires='>=3.10',
    install_requires=[
        'cryptography>=42.0.4',
        'argon2-cffi>=23.1.0',
        'PyNaCl>=1.5.0',
        'aiohttp>=3.9.0',
        'aiofiles>=23.2.1',
        'tomli>=2.0.1; python_version<"3.11"',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
)
