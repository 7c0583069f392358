# cyberrank

`cyberrank` ranks the particles (content identifiers) of a knowledge graph. The graph
is made of cyberlinks, and each cyberlink is created by a neuron, an account that holds
stake. The package also does resource "investmint" accounting: base tokens are locked
for a period, and in return time-locked resources are minted.

It has no runtime dependencies.

## Rank (`cyberrank.rank`)

- `cyberrank.rank.params`
  - `RankParams` holds `calculation_period`, `damping_factor` and `tolerance`.
    `validate()` checks them and raises `ParamError` when one is wrong.
  - `default_params()`, `default_genesis_state()`, `validate_genesis(state)` and
    `RankGenesisState` cover genesis.
  - The module also holds the byte keys the keeper uses in its store.
- `cyberrank.rank.context`
  - `CalculationContext` is a snapshot of in/out links, stakes and neudegs.
    `sorted_in_links(cid)` and `sorted_out_links(cid)` give a particle's neighbours
    ordered by cid number.
  - `ComputeUnit` is `CPU` or `GPU`.
  - `GraphSource` and `StakeSource` are the protocols an application implements to feed
    the keeper.
- `cyberrank.rank.calculate`
  - `calculate_rank_cpu(ctx)` iterates the stake-weighted rank until it is within the
    context's tolerance. It also computes the experimental entropy and karma values and
    returns an `EMState`.
  - `calculate_rank(ctx, unit)` turns that result into a `Rank`.
  - Asking for a unit other than `ComputeUnit.CPU` raises `GPUUnavailableError`.
- `cyberrank.rank.state`
  - `EMState` holds the float results.
  - `Rank` holds the integer rank, entropy and karma values, each scaled by 10^15. It also
    holds the 8-byte little-endian leaves of the rank tree, the particle count, the
    negentropy, and, when built with `full_tree`, the top list.
  - `Rank` has `from_state`, `is_empty`, `clear`, `copy` and `add_new_cids`.
  - `build_top(values, size)` lists the particles with a non-zero rank, highest first,
    as `RankedCidNumber`.
- `cyberrank.rank.index`
  - `SearchIndex` keeps each particle's outgoing and incoming links ordered by rank.
    `search`, `backlinks` and `top` answer paginated queries.
  - The index stays locked, and queries raise `SearchIndexError`, until `put_new_rank`
    has been called.
  - `NoopSearchIndex` stands in when search is disabled. It rejects every query.
  - `CompactLink` describes one new cyberlink.
- `cyberrank.rank.keeper`
  - `RankKeeper` stores its state in a byte-keyed mapping. `end_block(height)` starts a
    recalculation in a background thread every calculation period; the result is applied
    at the next period block.
  - Queries are `rank`, `rank_value_by_number`, `search`, `backlinks`, `top` (at most
    1000 per page), `entropy`, `negentropy` and `karma`.
  - Unknown particles raise `ParticleNotFoundError`, and an oversized `top` page raises
    `InvalidRequestError`.
  - It is a context manager; `close()` stops the worker thread.

## Resources (`cyberrank.resources`)

- `cyberrank.resources.types`
  - `Coin`, with `Coin.parse("<amount><denom>")`.
  - `ResourcesParams`, with its defaults and `validate()`, plus the genesis helpers.
  - `MsgInvestmint`, with `validate_basic()`, and `is_valid_bech32(address)`.
  - `ResourcesError` carries the module's error codes, which are the `ERR_*` constants.
- `cyberrank.resources.vesting`
  - `Period` and `PeriodicVestingAccount`.
  - `new_vesting_account` and `add_coins`.
  - `add_to_schedule` inserts locked coins into a schedule with a limited number of
    slots and returns a new account.
- `cyberrank.resources.keeper`
  - `ResourcesKeeper` holds in-memory accounts and balances.
  - It provides `calculate_investmint`, `check_available_period`,
    `add_time_locked_coins`, `mint`, `convert_resource`, `investmint` (which handles a
    message and records events on the `BlockContext`) and `query_investmint`.
- `cyberrank.resources.wasm`
  - `parse_custom(data)` decodes a contract's JSON `{"investmint": {...}}` message into
    a validated `MsgInvestmint`.

## Example

```python
from cyberrank.rank.params import default_params
from cyberrank.resources.keeper import BlockContext, ResourcesKeeper
from cyberrank.resources.types import VOLT, Coin

default_params().validate()

keeper = ResourcesKeeper()
ctx = BlockContext(height=100, time=0)
print(keeper.query_investmint(ctx, Coin.parse("1000000000hydrogen"), VOLT, 2_592_000))
```

## What it does not do

- The package is a library. It has no command line, no query or REST server and no
  blockchain node.
- The rank tree is kept as its raw leaves. No Merkle hashes are computed.
- Storage is whatever mapping the caller passes in. The graph and stakes come from
  objects the caller provides.
- Minting in `ResourcesKeeper` only credits the in-memory balances. There is no bank or
  transfer layer behind it.
- GPU calculation is not available.

## Running the tests

```
pip install -e ".[test]"
pytest
```