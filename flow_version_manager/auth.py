"""
OAuth 2.0 Web Server Flow with PKCE and a local callback server.

The access token obtained here is the session credential the delete request
passes through to the Tooling API.
"""

import base64
import errno
import hashlib
import secrets
import threading
import time
import urllib.parse
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Tuple

import requests

from flow_version_manager.errors import AuthenticationError, response_detail

AUTH_TIMEOUT = 300  # 5 minutes
PROGRESS_INTERVAL = 15

SUCCESS_PAGE = b'''
<html>
<body>
    <h1>Authentication Successful!</h1>
    <p>You can close this window and return to the Flow Version Manager.</p>
</body>
</html>
'''


class CallbackHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        if not self.path.startswith('/callback'):
            self.send_response(404)
            self.end_headers()
            return

        query_params = urllib.parse.parse_qs(urllib.parse.urlparse(self.path).query)
        if 'code' in query_params:
            self.server.auth_code = query_params['code'][0]
            self._reply(200, SUCCESS_PAGE)
        elif 'error' in query_params:
            error = query_params['error'][0]
            error_desc = query_params.get('error_description', ['Unknown error'])[0]
            self.server.auth_error = f"{error}: {error_desc}"
            self._reply(400, f'''
<html>
<body>
    <h1>Authentication Failed</h1>
    <p>Error: {error}</p>
    <p>Description: {error_desc}</p>
</body>
</html>
'''.encode())
        else:
            self._reply(400, b'<html><body><h1>Missing authorization code</h1></body></html>')

    def _reply(self, status: int, body: bytes):
        self.send_response(status)
        self.send_header('Content-type', 'text/html')
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        # Keep the console clean
        pass


def make_pkce_pair() -> Tuple[str, str]:
    """Return (code_verifier, code_challenge) for the S256 method"""
    code_verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).decode('utf-8').rstrip('=')
    digest = hashlib.sha256(code_verifier.encode('utf-8')).digest()
    code_challenge = base64.urlsafe_b64encode(digest).decode('utf-8').rstrip('=')
    return code_verifier, code_challenge


def build_authorize_url(instance_url: str, client_id: str, redirect_uri: str, code_challenge: str) -> str:
    auth_params = {
        'response_type': 'code',
        'client_id': client_id,
        'redirect_uri': redirect_uri,
        'scope': 'api refresh_token',
        'code_challenge': code_challenge,
        'code_challenge_method': 'S256'
    }
    return f"{instance_url}/services/oauth2/authorize?" + urllib.parse.urlencode(auth_params)


def exchange_code(instance_url: str, client_id: str, client_secret: str, redirect_uri: str,
                  auth_code: str, code_verifier: str) -> str:
    """Trade the authorization code for an access token"""
    token_data = {
        'grant_type': 'authorization_code',
        'client_id': client_id,
        'redirect_uri': redirect_uri,
        'code': auth_code,
        'code_verifier': code_verifier
    }
    if client_secret:
        token_data['client_secret'] = client_secret

    try:
        response = requests.post(f"{instance_url}/services/oauth2/token", data=token_data)
        response.raise_for_status()
        return response.json()['access_token']
    except requests.exceptions.RequestException as e:
        raise AuthenticationError("Token exchange failed", response_detail(e)) from e
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid response from Salesforce. Check your Connected App configuration.")


def wait_for_callback(server: HTTPServer, timeout: int = AUTH_TIMEOUT) -> str:
    start_time = time.time()
    last_progress_time = 0

    while server.auth_code is None and server.auth_error is None:
        time.sleep(0.1)
        elapsed_time = time.time() - start_time
        if elapsed_time > timeout:
            raise AuthenticationError(f"Authentication timed out after {timeout} seconds")
        if elapsed_time - last_progress_time >= PROGRESS_INTERVAL:
            print(f"⏳ Still waiting for authentication... ({int(timeout - elapsed_time)} seconds remaining)")
            last_progress_time = elapsed_time

    if server.auth_error:
        raise AuthenticationError(f"Authentication failed: {server.auth_error}")
    return server.auth_code


def authenticate(instance_url: str, client_id: str, client_secret: str = '', port: int = 8080,
                 session_log=None) -> str:
    """Run the browser login and return an access token"""
    def log(message):
        if session_log is not None:
            session_log.log_message(message)

    redirect_uri = f"http://localhost:{port}/callback"
    code_verifier, code_challenge = make_pkce_pair()
    log(f"Authentication started for instance: {instance_url}")
    log(f"Client ID provided: {client_id[:8]}...")
    log(f"Using callback port: {port}")

    try:
        server = HTTPServer(('localhost', port), CallbackHandler)
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            raise AuthenticationError(
                f"Port {port} is already in use. Close the application using it or pick another port.")
        raise AuthenticationError(f"Failed to start server on port {port}: {e}")

    server.auth_code = None
    server.auth_error = None
    server_thread = threading.Thread(target=server.serve_forever)
    server_thread.daemon = True
    server_thread.start()

    try:
        auth_url = build_authorize_url(instance_url, client_id, redirect_uri, code_challenge)
        print(f"Opening browser to: {auth_url}")
        print("⏳ Waiting for you to complete authentication in your browser...")
        webbrowser.open(auth_url)

        auth_code = wait_for_callback(server)
        print("✅ Authorization code received!")
        access_token = exchange_code(instance_url, client_id, client_secret, redirect_uri, auth_code, code_verifier)
        log("Authentication successful")
        return access_token
    except AuthenticationError as e:
        log(f"Authentication failed: {e.message} {e.detail or ''}")
        raise
    finally:
        server.shutdown()
        server.server_close()
