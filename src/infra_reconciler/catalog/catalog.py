"""Resource Descriptor Catalog."""

from typing import Dict, Iterable, List

from infra_reconciler.catalog.dependency_graph import DependencyGraph
from infra_reconciler.catalog.models import NamingContext, ResourceDescriptor
from infra_reconciler.utils.errors import ConfigurationError, ErrorContext
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


class ResourceCatalog:
    """Immutable, validated set of resource descriptors.

    Construction renders every native ID template against the naming context
    and validates the dependency graph. Any problem is a ``ConfigurationError``
    raised here, never later at plan time.
    """

    def __init__(self, descriptors: Iterable[ResourceDescriptor], naming: NamingContext):
        """Build the catalog.

        Args:
            descriptors: Descriptors in declaration order
            naming: Naming context for template rendering

        Raises:
            ConfigurationError: On duplicates, unknown dependencies, cycles or
                unrenderable templates
        """
        self.naming = naming
        self._graph = DependencyGraph()

        for descriptor in descriptors:
            self._graph.add_descriptor(descriptor.render(naming))

        self._order = self._graph.topological_sort()
        self._descriptors: Dict[str, ResourceDescriptor] = {
            name: self._graph.nodes[name].descriptor for name in self._order
        }

        seen: Dict[str, str] = {}
        for name, descriptor in self._descriptors.items():
            address = descriptor.engine_address
            if address in seen:
                raise ConfigurationError(
                    f"Descriptors '{seen[address]}' and '{name}' share engine address '{address}'",
                    context=ErrorContext(resource_id=name)
                )
            seen[address] = name

        logger.debug(f"Catalog loaded: {len(self._order)} descriptors for {naming.prefix}")

    def describe(self, logical_name: str) -> ResourceDescriptor:
        """Get the descriptor for a logical name.

        Raises:
            ConfigurationError: If the name is not in the catalog
        """
        descriptor = self._descriptors.get(logical_name)
        if descriptor is None:
            raise ConfigurationError(
                f"Unknown logical name: '{logical_name}'",
                context=ErrorContext(resource_id=logical_name)
            )
        return descriptor

    def render_native_id(self, descriptor: ResourceDescriptor) -> str:
        """Resolve a descriptor's native ID with this catalog's naming context."""
        return descriptor.render(self.naming).expected_id

    def all_descriptors(self) -> List[ResourceDescriptor]:
        """All descriptors in dependency order, leaves first."""
        return [self._descriptors[name] for name in self._order]

    def destruction_order(self) -> List[ResourceDescriptor]:
        """All descriptors in reverse dependency order, dependents first."""
        return [self._descriptors[name] for name in self._graph.get_destruction_order()]

    def logical_names(self) -> List[str]:
        """Logical names in dependency order."""
        return list(self._order)

    def waves(self) -> List[List[str]]:
        """Dependency levels, leaves first."""
        return self._graph.get_waves()

    def dependencies_of(self, logical_name: str) -> List[str]:
        """Declared dependencies of a descriptor."""
        return list(self.describe(logical_name).depends_on)

    def by_address(self) -> Dict[str, ResourceDescriptor]:
        """Descriptors keyed by declarative engine address."""
        return {d.engine_address: d for d in self.all_descriptors()}

    def __contains__(self, logical_name: object) -> bool:
        return logical_name in self._descriptors

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self):
        return iter(self.all_descriptors())
