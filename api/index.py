import logging
import os
import sys

from mangum import Mangum

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from wallet.api import create_app

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=os.getenv("BETPOA_LOG_LEVEL", "INFO"),
)

app = create_app(root_path="/api")

handler = Mangum(app)
