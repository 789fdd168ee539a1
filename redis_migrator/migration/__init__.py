from .resp import encode
from .strategies import ValueType, COPY_STRATEGIES, copy_value
from .planner import compute_plan, plan_size
from .channel import BulkLoadChannel, ChannelError, RedisCliPipe
from .executor import Migrator, MigrationOptions, MigrationReport, NodeReport
from .populator import Populator
