"""
Example API client for the SQLCrypt facade.

This example demonstrates how to use the facade's REST API: the client
sends plaintext values and receives plaintext rows, while the database
only ever sees ciphertext and hashes.

Start the server first, with a policy that encrypts ``products.name``:

    SQLCRYPT_ENCRYPTION_KEY=example-key python main.py --config examples/example.yaml
"""

import json

import requests


def run(api_url: str, sql: str, params: list | None = None) -> dict:
    """Send one statement to the facade and return the result contract."""
    response = requests.post(f"{api_url}/query", json={"sql": sql, "params": params or []})
    response.raise_for_status()
    return response.json()


def main() -> None:
    """Example usage of the SQLCrypt facade API."""
    api_url = "http://localhost:8000"
    
    print("SQLCrypt Facade API Example\n")
    
    # Check if the API is running
    try:
        response = requests.get(f"{api_url}/health")
        if response.status_code != 200:
            print(f"API is not available at {api_url}")
            return
            
        health_data = response.json()
        print(f"API is running in {health_data['mode']} mode")
        print(f"Encryption enabled: {health_data['encryption_enabled']}")
    except requests.exceptions.RequestException:
        print(f"API is not available at {api_url}")
        return
    
    try:
        run(api_url, "CREATE TABLE IF NOT EXISTS products (id INTEGER PRIMARY KEY, name TEXT, price REAL)")
        
        # Insert inside an explicit transaction
        requests.post(f"{api_url}/transaction/begin").raise_for_status()
        result = run(
            api_url,
            "INSERT INTO products (name, price) VALUES (?, ?)",
            ["Smartphone", 999.99],
        )
        requests.post(f"{api_url}/transaction/commit").raise_for_status()
        print(f"\nProduct saved with id {result.get('last_insert_id')}")
        
        result = run(api_url, "SELECT id, name, price FROM products WHERE id = ?", [result.get("last_insert_id")])
        print("\nQuery results:")
        print(json.dumps(result["data"], indent=2))
    except requests.exceptions.RequestException as e:
        print(f"\nRequest failed: {e}")


if __name__ == "__main__":
    main()
