"""环境层测试"""
import numpy as np
import pytest

from core.state import GameState, Phase, Side
from core.traits import ALL_CATEGORIES, GameMode, TraitCategory


class TestActionEncoding:
    """动作编码测试"""

    def test_roundtrip(self):
        from env.observation import decode_action, encode_action

        idx = encode_action(3, TraitCategory.WEAPON)
        slot, category = decode_action(idx)
        assert slot == 3
        assert category == TraitCategory.WEAPON

    def test_no_category(self):
        from env.observation import encode_action

        assert encode_action(5) == 5 * 16

    def test_invalid(self):
        from env.observation import NUM_ACTIONS, decode_action, encode_action

        with pytest.raises(ValueError):
            decode_action(NUM_ACTIONS)
        with pytest.raises(ValueError):
            encode_action(12)


class TestObservationBuilder:
    """ObservationBuilder 测试"""

    @pytest.fixture
    def state_and_traits(self, make_record):
        player = list(range(1, 13))
        opponent = list(range(101, 113))
        traits = {card: make_record(strength=card % 100 + 50) for card in player + opponent}
        traits[1] = make_record(weapon="Plasma Scythe", strength=95)
        state = GameState.initial(player, opponent, GameMode.CHAOTIC)
        return state, traits

    def test_shapes(self, state_and_traits):
        from env.observation import ObservationBuilder

        state, traits = state_and_traits
        obs = ObservationBuilder().build(state, traits)

        assert obs.hand.shape == (12, 16)
        assert obs.slot_mask.shape == (12,)
        assert obs.attack.shape == (17,)
        assert obs.phase.sum() == 1
        assert obs.mode.sum() == 1
        assert obs.active_traits.sum() == 12

    def test_trait_encoding(self, state_and_traits):
        from env.observation import ObservationBuilder

        state, traits = state_and_traits
        obs = ObservationBuilder().build(state, traits)
        weapon = ALL_CATEGORIES.index(TraitCategory.WEAPON)
        strength = ALL_CATEGORIES.index(TraitCategory.STRENGTH)

        assert obs.hand[0, weapon] == pytest.approx(1.0)
        assert obs.hand[0, strength] == pytest.approx(0.95)
        assert obs.hand[1, weapon] == pytest.approx(0.0)

    def test_incoming_attack(self, state_and_traits, rng):
        from env.observation import ObservationBuilder

        state, traits = state_and_traits
        for card in (1, 2, 3):
            state = state.with_discard(card, traits, rng)
        state = state.with_attack(12, TraitCategory.STRENGTH, traits[12])
        state = state.with_defense(state.opponent_deck[0], traits[state.opponent_deck[0]])
        builder = ObservationBuilder()

        # 玩家自己的进攻不编码为来袭进攻
        assert builder.build(state, traits).attack.sum() == 0

    def test_to_flat_array(self, state_and_traits):
        from env.observation import ObservationBuilder

        state, traits = state_and_traits
        flat = ObservationBuilder().build(state, traits).to_flat_array()
        assert isinstance(flat, np.ndarray)
        assert flat.ndim == 1


class TestTraitClashEnv:
    """TraitClashEnv 测试"""

    def test_reset(self):
        from env import TraitClashEnv

        env = TraitClashEnv(seed=42)
        obs, info = env.reset()

        assert env.observation_space.contains(obs)
        assert info["phase"] == "cull"
        assert len(info["legal_actions"]) == 12 * 16
        assert len(env.traits) == 24
        env.close()

    def test_seeded_reset(self):
        from env import TraitClashEnv

        a = TraitClashEnv(seed=7)
        b = TraitClashEnv(seed=7)
        a.reset()
        b.reset()
        assert a.state.player_hand == b.state.player_hand
        assert a.traits[a.state.player_hand[0]] == b.traits[b.state.player_hand[0]]

    def test_step_before_reset(self):
        from env import TraitClashEnv

        env = TraitClashEnv()
        with pytest.raises(RuntimeError):
            env.step(0)

    def test_cull_ignores_category(self):
        from env import TraitClashEnv
        from env.observation import encode_action

        env = TraitClashEnv(seed=1)
        env.reset()
        card = env.state.player_hand[2]
        env.step(encode_action(2, TraitCategory.HELM))

        assert env.state.discarded == (card,)
        assert env.get_legal_actions() == sorted(
            a for a in range(12 * 16) if a // 16 != 2
        )

    def test_combat_after_cull(self):
        from env import TraitClashEnv
        from env.observation import encode_action

        env = TraitClashEnv(mode="chaotic", seed=1)
        env.reset()
        for slot in range(3):
            obs, reward, terminated, truncated, info = env.step(encode_action(slot))

        assert info["phase"] == "combat"
        assert env.state.pending_side == Side.PLAYER
        assert env.state.battle is None
        # 9 张卡 x 12 个可用特征
        assert len(env.get_legal_actions()) == 9 * 12
        assert reward == 0.0

    def test_invalid_action(self):
        from env import TraitClashEnv
        from env.observation import encode_action

        env = TraitClashEnv(seed=3)
        env.reset()
        env.step(encode_action(0))
        before = env.state
        obs, reward, terminated, truncated, info = env.step(encode_action(0))

        assert reward == -1.0
        assert info["error"] == "Invalid action"
        assert env.state is before

    def test_random_episode(self):
        from env import TraitClashEnv

        env = TraitClashEnv(mode="threat-intelligence", seed=5)
        obs, info = env.reset()
        done = False
        total_reward = 0.0
        steps = 0

        while not done:
            legal = env.get_legal_actions()
            assert legal
            obs, reward, terminated, truncated, info = env.step(env.sample_action())
            assert "error" not in info
            total_reward += reward
            done = terminated or truncated
            steps += 1
            assert steps < 100

        state = env.state
        assert state.phase == Phase.FINISHED
        assert total_reward == state.player_score - state.opponent_score
        assert info["outcome"] in ("win", "lose")
        assert env.get_legal_actions() == []
        assert env.observation_space.contains(obs)

    def test_step_after_finish(self):
        from env import TraitClashEnv

        env = TraitClashEnv(seed=9)
        env.reset()
        done = False
        while not done:
            _, _, terminated, truncated, _ = env.step(env.sample_action())
            done = terminated or truncated
        with pytest.raises(RuntimeError):
            env.step(0)

    def test_render(self):
        from env import TraitClashEnv

        env = TraitClashEnv(render_mode="ansi", seed=2)
        env.reset()
        text = env.render()
        assert "Phase: cull" in text
        assert "Score: player 0 - 0 opponent" in text

    def test_mode_option(self):
        from env import make_env

        env = make_env(seed=4)
        env.reset(options={"mode": "chaotic"})
        assert env.state.mode == GameMode.CHAOTIC
