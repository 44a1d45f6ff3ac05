from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface

class RAGClientManager:
    """
    Manager class to handle the RAG client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the RAG engine from ENV configuration. Defaults to Qdrant.

        Returns:
            str: The name of the RAG engine, capitalised (e.g. "Qdrant").
        """
        engine = self.helper_config.get_string_val("RAG_ENGINE", default="qdrant")

        #lowercase all and uppcercase first letter for better comparison and display
        engine = engine.strip().lower()
        return engine.capitalize()

    def _initialize_client(self) -> RAGClientInterface:
        """
        Initializes the RAG client based on the engine specified in the configuration.

        Returns:
            RAGClientInterface: An instance of the RAG client that implements the RAGClientInterface.

        Raises:
            ValueError: If no valid RAG client could be instantiated from the specified engine.
        """
        engine = self._get_engine_from_env()
        className = f"RAGClient{engine}"
        # try to import the class from shared.clients.rag.{engine}
        try:
            module = __import__(
                f"shared.clients.rag.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported RAG engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated RAG client for engine: {engine}")
        return client

    def get_client(self) -> RAGClientInterface:
        """
        Returns the instantiated RAG client.

        Returns:
            RAGClientInterface: The RAG client instance.
        """
        return self.client
