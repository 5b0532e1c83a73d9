from countylocal import create_app

# Local development entry point.
app = create_app()

if __name__ == '__main__':
    app.run(debug=True)
