#!/usr/bin/env python

import setuptools

setuptools.setup(
    name="pagechat",
    version="0.1.0",
    description="A PDF viewer that turns page regions and text selections into streaming chat prompts and persisted annotations.",
    packages=setuptools.find_packages(include=["pagechat", "pagechat.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=['Pillow>=9.3.0',
                      'httpx>=0.24',
                      'PyMuPDF>=1.23',
                      'qtpy>=2.0',
                      'PyQt5>=5.15',
                      'termcolor>=2.0',
                      'colorama>=0.4; platform_system=="Windows"',
                      ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.10',

    entry_points={
        'console_scripts': [
            'pagechat = pagechat.main:main',
        ],
    },


)
