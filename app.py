from posapp import create_app

app = create_app()

if __name__ == "__main__":
    # Bind to every interface so other terminals on the shop network can connect
    app.run(host="0.0.0.0", port=5000, debug=True)
