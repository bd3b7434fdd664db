"""Run the API with uvicorn: python -m api"""

import uvicorn

from api.main import API_HOST, API_PORT, LOG_LEVEL, app

if __name__ == "__main__":
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())
