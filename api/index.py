"""
Vercel Serverless Entry Point

Vercel routes every request to this module and serves the exported `app`.
Routing happens in the blueprints under countylocal/api/.
"""

from countylocal import create_app

app = create_app()
