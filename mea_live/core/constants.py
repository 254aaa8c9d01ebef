"""Protocol constants for the live MEA service."""

# Socket.IO endpoint of the live MEA service
MEA_SERVER_URL = "wss://livemeaservice2.alpvision.com/socket.io/?EIO=4&transport=websocket"

MEA_COUNT = 4                   # MEAs served by one endpoint
ELECTRODES_PER_MEA = 32
SAMPLES_PER_ELECTRODE = 4096
SAMPLE_BYTES = 4                # float32

FRAME_VALUES = ELECTRODES_PER_MEA * SAMPLES_PER_ELECTRODE

SAMPLE_EVENT = "meaid"
DATA_EVENT = "livedata"
